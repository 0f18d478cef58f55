from __future__ import annotations

from setuptools import find_packages, setup

from config.version import PROJECT_VERSION, PYTHON_REQUIRES_SPECIFIER

INSTALL_REQUIRES = [
    "pydantic>=2.5",
    "loguru>=0.7",
    "python-dotenv>=1.0",
    "tomli>=2.0; python_version < '3.11'",
    "tomli-w>=1.0",
    "python-dateutil>=2.8",
    "beautifulsoup4>=4.12",
    "httpx>=0.25",
    "openai>=1.30",
]

TEST_REQUIRES = [
    "pytest>=7.4",
    "anyio>=4.0",
    "hypothesis>=6.90",
]

if __name__ == "__main__":
    setup(
        name="techcurator",
        version=PROJECT_VERSION,
        description="Personalized technical article curation driven by a language model",
        python_requires=PYTHON_REQUIRES_SPECIFIER,
        packages=find_packages(include=["config", "techcurator", "src", "src.*"]),
        py_modules=["main"],
        install_requires=INSTALL_REQUIRES,
        extras_require={"test": TEST_REQUIRES},
        entry_points={
            "console_scripts": [
                "techcurator=main:main",
                "techcurator-config=techcurator.config_manager:main",
            ]
        },
    )
