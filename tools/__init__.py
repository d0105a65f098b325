from .rpc_server import RpcServer, connect_stdio
from .resource_server import ResourceServer

__all__ = ['RpcServer', 'connect_stdio', 'ResourceServer']
