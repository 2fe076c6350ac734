from setuptools import setup

setup(
    name        = "nbtree",
    version     = "1.0.0",
    description = "NBT tree and Region file decoder",
    packages    = [ "nbtree" ],
    python_requires = ">=3.4",
    zip_safe    = True
)
