from setuptools import find_packages, setup

setup(
    name="wagate",
    version="0.0.0",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    include_package_data=True,
    package_data={"wagate.server": ["dashboard.html"]},
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "requests",
        "click",
        "pymongo",
        "neonize",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
            "mongomock",
        ],
    },
    entry_points={
        "console_scripts": [
            "wagate=wagate.cli:cli",
        ],
    },
)
