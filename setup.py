from setuptools import find_packages, setup

setup(
    name="htlc_registry",
    version="0.1.0",
    description="Hashed time-locked contract registry for atomic swaps",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "structlog>=23.0.0",
        "python-bitcoinlib>=0.12.0",
        "aiosqlite>=0.19.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "click>=8.1.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": ["htlc-registry=htlc_registry.cli:main"],
    },
)
