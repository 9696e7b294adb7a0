from setuptools import setup, find_packages

setup(
    name="curvigrid",
    version="0.1.0",
    packages=find_packages(include=["curvigrid", "curvigrid.*"]),
    install_requires=[
        "numpy",
        "scipy",
        "torch>=1.9.0",
        "matplotlib",
    ],
    extras_require={
        "test": ["pytest"],
    },
    author="Volume Cartographer Team",
    author_email="info@volumecartographer.com",
    description="Point location and multilinear interpolation on curvilinear grids",
    keywords="curvilinear grid, interpolation, point location, newton-raphson",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
    ],
    python_requires=">=3.8",
)
