"""
Protocol buffer messages for node_rpc.proto.

The descriptor is assembled with descriptor_pb2 in a private pool so the
module has no build step; it mirrors node_rpc.proto field for field.
"""
from google.protobuf import descriptor_pb2
from google.protobuf import descriptor_pool
from google.protobuf import message_factory

_FieldProto = descriptor_pb2.FieldDescriptorProto

_file = descriptor_pb2.FileDescriptorProto(
    name="node_rpc.proto",
    package="node_rpc",
    syntax="proto3",
)

_request = _file.message_type.add(name="Request")
_request.field.add(name="input", json_name="input", number=1,
                   type=_FieldProto.TYPE_STRING, label=_FieldProto.LABEL_OPTIONAL)

_response = _file.message_type.add(name="Response")
_response.field.add(name="output", json_name="output", number=1,
                    type=_FieldProto.TYPE_STRING, label=_FieldProto.LABEL_OPTIONAL)
_response.field.add(name="status", json_name="status", number=2,
                    type=_FieldProto.TYPE_BOOL, label=_FieldProto.LABEL_OPTIONAL)
_response.field.add(name="status_message", json_name="statusMessage", number=3,
                    type=_FieldProto.TYPE_STRING, label=_FieldProto.LABEL_OPTIONAL)

_service = _file.service.add(name="NodeRpc")
_service.method.add(name="RpcMethod", input_type=".node_rpc.Request", output_type=".node_rpc.Response")

_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file.SerializeToString())

DESCRIPTOR = _pool.FindFileByName("node_rpc.proto")

Request = message_factory.GetMessageClass(DESCRIPTOR.message_types_by_name["Request"])
Response = message_factory.GetMessageClass(DESCRIPTOR.message_types_by_name["Response"])
