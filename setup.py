from setuptools import setup, find_packages

setup(
    name="DagFrame",
    version="0.2.0",
    packages=find_packages(exclude=["tests", "tests.*", "samples", "samples.*"]),
    install_requires=["pandas", "numpy"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
    include_package_data=True,  # Force additional files into the package
)
