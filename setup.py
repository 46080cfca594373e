# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="amm_ledger",
    version="0.1.0",
    packages=find_namespace_packages(include=["amm_ledger", "amm_ledger.*"]),
    python_requires=">=3.10",
    install_requires=[
        "msgpack",            # state encoding
        "cryptography",       # ECDSA transaction signatures
        "pycryptodome",       # keccak hashing
        "prometheus_client",  # metrics
        "psutil",             # monitoring
    ],
    extras_require={
        "leveldb": ["plyvel"],  # persistent backend
        "test": ["pytest"],
    },
)
