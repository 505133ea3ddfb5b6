from setuptools import setup, find_packages
setup(
    name="handle_index",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=["numpy", "zstandard>=0.16", "xxhash", "loguru", "PyYAML"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["ts-db = handle_index.cli:main"]},
    python_requires=">=3.10",
)
