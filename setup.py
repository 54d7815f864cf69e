from setuptools import setup, find_packages

setup(
    name="prompt-enhancer",
    version="0.1.0",
    packages=find_packages(include=["enhancer", "enhancer.*"]),
    python_requires=">=3.12",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.36",
        "uvicorn>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "httpx>=0.26",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
