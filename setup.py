from setuptools import setup, find_namespace_packages

setup(
    name="invite-redeem",
    version="0.1.0",
    packages=find_namespace_packages(include=["redeemer", "redeemer.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.6",
        "pydantic-settings>=2.3",
        "redis>=5.0.1",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
