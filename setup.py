from setuptools import setup, find_packages

setup(
    name="nlb-registrator-sidecar",
    version="0.1.0",
    packages=find_packages(),
    install_requires=[
        "kubernetes",
        "boto3",
        "flask",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "nlb-registrator=registrator.main:run",
        ],
    },
    python_requires=">=3.9",
)
