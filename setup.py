from setuptools import setup, find_packages

setup(
    name="vinoscan",
    version="0.1.0",
    description="VinoScan - a personal wine cellar inventory with label scanning.",
    author="",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "openai>=1.0.0",
        "tenacity>=8.2.0",
        "python-dotenv>=1.0.0",
        "Pillow>=10.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "httpx>=0.23.0",
        ],
    },
)
