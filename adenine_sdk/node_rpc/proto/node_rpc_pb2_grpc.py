"""Client and server classes corresponding to node_rpc.proto services."""
import grpc

from . import node_rpc_pb2 as node__rpc__pb2

SERVICE_NAME = "node_rpc.NodeRpc"


class NodeRpcStub(object):
    """Client stub for the NodeRpc service."""

    def __init__(self, channel):
        """Constructor.

        Args:
            channel: A grpc.Channel.
        """
        self.RpcMethod = channel.unary_unary(
            f"/{SERVICE_NAME}/RpcMethod",
            request_serializer=node__rpc__pb2.Request.SerializeToString,
            response_deserializer=node__rpc__pb2.Response.FromString,
        )


class NodeRpcServicer(object):
    """Server-side interface of the NodeRpc service."""

    def RpcMethod(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details("Method not implemented!")
        raise NotImplementedError("Method not implemented!")


def add_NodeRpcServicer_to_server(servicer, server):
    rpc_method_handlers = {
        "RpcMethod": grpc.unary_unary_rpc_method_handler(
            servicer.RpcMethod,
            request_deserializer=node__rpc__pb2.Request.FromString,
            response_serializer=node__rpc__pb2.Response.SerializeToString,
        ),
    }
    generic_handler = grpc.method_handlers_generic_handler(SERVICE_NAME, rpc_method_handlers)
    server.add_generic_rpc_handlers((generic_handler,))
