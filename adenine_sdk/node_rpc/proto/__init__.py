"""
Protocol buffer definitions for the Node RPC service.

This module provides access to the protocol buffer classes and gRPC
service stubs for interacting with the Node RPC service.
"""
from .node_rpc_pb2 import Request, Response
from .node_rpc_pb2_grpc import NodeRpcStub, NodeRpcServicer, add_NodeRpcServicer_to_server

__all__ = [
    'Request',
    'Response',
    'NodeRpcStub',
    'NodeRpcServicer',
    'add_NodeRpcServicer_to_server',
]
