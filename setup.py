from setuptools import setup, find_packages

setup(
    name="snaprotator",
    version="0.1.0",
    description="Virtual machine snapshot rotator with failure reporting",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"snaprotator": ["templates/*.html"]},
    include_package_data=True,
    install_requires=[
        "click>=8.0.0",
        "PyYAML>=6.0",
        "requests>=2.28",
        "Jinja2>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "snaprotator=snaprotator.cli:main",
        ],
    },
    python_requires=">=3.10",
)
