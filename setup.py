from setuptools import setup, find_packages

setup(
    name="designreview",
    version="0.1.0",
    packages=find_packages(include=["designreview", "designreview.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "httpx>=0.26",
    ],
    extras_require={
        "server": ["uvicorn[standard]>=0.27"],
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
