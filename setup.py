from setuptools import find_packages, setup

setup(
    name="spm-panel",
    version="0.1.0",
    description="Linear and nonlinear shear panel elements for stringer-panel models",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "scipy",
        "pyyaml",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
