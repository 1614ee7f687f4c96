"""
Sawtooth ledger message schema.

Declares the transaction and batch protobuf messages the validator accepts.
The schema is assembled at import time into a private descriptor pool, so
no generated `_pb2` modules are needed.
"""

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.message import DecodeError, Message
from google.protobuf.message_factory import GetMessageClass

_Field = descriptor_pb2.FieldDescriptorProto

_STRING = _Field.TYPE_STRING
_BYTES = _Field.TYPE_BYTES
_BOOL = _Field.TYPE_BOOL
_MESSAGE = _Field.TYPE_MESSAGE

PACKAGE = "sawtooth"

# (message, [(number, name, type, repeated, message type)])
_SCHEMA = [
    ("TransactionHeader", [
        (1, "batcher_public_key", _STRING, False, None),
        (2, "dependencies", _STRING, True, None),
        (3, "family_name", _STRING, False, None),
        (4, "family_version", _STRING, False, None),
        (5, "inputs", _STRING, True, None),
        (6, "nonce", _STRING, False, None),
        (7, "outputs", _STRING, True, None),
        (9, "payload_sha512", _STRING, False, None),
        (10, "signer_public_key", _STRING, False, None),
    ]),
    ("Transaction", [
        (1, "header", _BYTES, False, None),
        (2, "header_signature", _STRING, False, None),
        (3, "payload", _BYTES, False, None),
    ]),
    ("BatchHeader", [
        (1, "signer_public_key", _STRING, False, None),
        (2, "transaction_ids", _STRING, True, None),
    ]),
    ("Batch", [
        (1, "header", _BYTES, False, None),
        (2, "header_signature", _STRING, False, None),
        (3, "transactions", _MESSAGE, True, "Transaction"),
        (4, "trace", _BOOL, False, None),
    ]),
    ("BatchList", [
        (1, "batches", _MESSAGE, True, "Batch"),
    ]),
]


def _file_descriptor_proto() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto()
    proto.name = "ballot_batcher/sawtooth.proto"
    proto.package = PACKAGE
    proto.syntax = "proto3"

    for message_name, fields in _SCHEMA:
        message = proto.message_type.add()
        message.name = message_name
        for number, name, field_type, repeated, type_name in fields:
            field = message.field.add()
            field.number = number
            field.name = name
            field.type = field_type
            field.label = _Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL
            if type_name:
                field.type_name = f".{PACKAGE}.{type_name}"

    return proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor_proto().SerializeToString())


def _message_class(name: str):
    return GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


TransactionHeader = _message_class("TransactionHeader")
Transaction = _message_class("Transaction")
BatchHeader = _message_class("BatchHeader")
Batch = _message_class("Batch")
BatchList = _message_class("BatchList")


def serialize(message: Message) -> bytes:
    """Serialize with deterministic field and map ordering."""
    return message.SerializeToString(deterministic=True)


def parse(message_class, data: bytes):
    """
    Parse bytes into a new message of the given class.

    Raises:
        DecodeError: If the bytes are not a valid encoding
    """
    message = message_class()
    message.ParseFromString(data)
    return message


__all__ = [
    "TransactionHeader",
    "Transaction",
    "BatchHeader",
    "Batch",
    "BatchList",
    "DecodeError",
    "serialize",
    "parse",
]
