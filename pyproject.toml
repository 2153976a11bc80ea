[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sparselinear"
version = "0.1.0"
description = "Linear classification and regression on sparse data: logistic regression, linear SVM and SVR solvers"
requires-python = ">=3.10"
dependencies = []
keywords = ["svm", "logistic regression", "linear classification", "svr", "sparse", "machine learning"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sparselinear-train = "sparselinear.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["sparselinear"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
