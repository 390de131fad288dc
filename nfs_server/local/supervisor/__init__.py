"""
The Supervisor package.
Manages the lifecycle of the NFS server processes.

This package contains the central Supervisor class and its helper modules,
which together handle configuring, starting, supervising and stopping
rpcbind, rpc.nfsd and rpc.mountd.
"""
from .supervisor import Supervisor

__all__ = ['Supervisor']
