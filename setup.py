from setuptools import find_packages, setup
from pathlib import Path


def read_readme() -> str:
    readme = Path(__file__).parent / "README.md"
    return readme.read_text(encoding="utf-8") if readme.exists() else ""


setup(
    name="hpc-accounts-scripts",
    version="0.1.0",
    description="Utilities for Slurm clusters: user association synchronization and job queue summaries.",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    author="hpc-accounts-scripts contributors",
    python_requires=">=3.9",
    license="MIT",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "slurm-user-jobs=hpc_accounts.user_jobs:main",
            "slurm-user-settings=hpc_accounts.user_settings:main",
        ]
    },
)
