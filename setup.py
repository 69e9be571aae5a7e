from pathlib import Path
from setuptools import setup, find_packages

ROOT = Path(__file__).parent
README = (ROOT / "README.md").read_text(encoding="utf-8")

setup(
    name="firestore_tree_odm",
    version="0.1.0",
    description="Schema-constrained, hierarchical document access for Google Cloud Firestore",
    long_description=README,
    long_description_content_type="text/markdown",
    author="Santos Dev Co",
    author_email="projects@santosdevco.com",
    license="MIT",
    packages=find_packages(exclude=("tests", "tests.*")),
    include_package_data=True,           # include py.typed
    package_data={"firestore_tree_odm": ["py.typed"]},
    python_requires=">=3.8",
    install_requires=[
        "pydantic>=1.10,<3.0.0",
        "google-cloud-firestore>=2.11.0",  # FieldFilter, async transactions
        "packaging",
    ],
    extras_require={
        "test": ["pytest", "pytest-asyncio", "httpx"],
        "dev": ["black", "ruff", "pytest", "pytest-asyncio", "httpx"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Framework :: AsyncIO",
        "Topic :: Database :: Front-Ends",
        "Typing :: Typed",
    ],
    keywords=[
        "firestore",
        "pydantic",
        "subcollections",
        "collection group",
        "transactions",
        "asyncio",
    ],
)
