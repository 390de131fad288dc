"""
NFS server container entrypoint.

Generates the NFS configuration files, starts rpcbind, rpc.nfsd and
rpc.mountd, and supervises them for the lifetime of the container.
"""
