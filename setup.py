from setuptools import setup, find_packages

setup(
    name="translation-relay",
    version="0.1.0",
    packages=find_packages(include=["relay", "relay.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "httpx",
        "pydantic",
        "pydantic-settings",
        "redis",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "respx",
        ],
    },
)
