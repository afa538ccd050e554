[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "yolodet"
version = "0.1.0"
description = "Decoding, non-maximum suppression and drawing of YOLO detections from int8-quantised network outputs"
requires-python = ">=3.10"
keywords = ["yolo", "object-detection", "nms", "quantization", "inference", "npu"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["yolodet"]

[tool.pytest.ini_options]
addopts = "-ra"
