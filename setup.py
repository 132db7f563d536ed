"""
Setup script for mastery-core.

mastery-core is the computational core of an adaptive quiz trainer:

1. Ability estimation - 2PL IRT with standard errors and a 100-900 score
2. Spaced topic review - FSRS scheduling expressed in quiz numbers
3. Curriculum phases - coverage, remediation, maintenance

The 'mastery' command exposes the same operations from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="mastery-core",
    version="1.0.0",
    description="Adaptive quiz mastery: IRT ability estimates and FSRS topic scheduling",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["masterycore", "masterycore.*"]),
    package_data={"masterycore.data": ["*.json"]},
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mastery=masterycore.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition irt fsrs quiz education",
)
