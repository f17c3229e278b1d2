from setuptools import setup, find_packages

setup(
    name="contentgate",
    version="0.1.0",
    packages=find_packages(include=["contentgate", "contentgate.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.37",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "redis>=5.0",
        "SQLAlchemy[asyncio]>=2.0",
        "asyncpg>=0.29",
        "httpx>=0.27",
        "aiosmtplib>=3.0",
        "itsdangerous>=2.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
            "aiosqlite>=0.20",
        ],
    },
)
