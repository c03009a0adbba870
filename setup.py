from setuptools import setup, find_packages

setup(
    name="tilescript",
    version="0.1.0",
    description="TileScript - a beginner scripting language driving actors through a simulated tile world",
    author="Your Name",
    packages=find_packages(include=["tilescript_core", "tilescript_core.*", "tilescript_engine", "tilescript_engine.*"]),
    include_package_data=True,
    install_requires=[
        # Core data modeling and validation
        "pydantic>=2.0.0",

        # Environment variables
        "python-dotenv>=1.0.0",

        # CLI and rich output
        "typer>=0.9.0",
        "rich>=13.0.0",

        # YAML scenario files
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tilescript = tilescript_engine.__main__:app",
        ],
    },
    python_requires=">=3.11",
    package_dir={"": "."},
)
