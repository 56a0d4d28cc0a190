"""Wire messages for the two access API generations.

The messages are declared here as descriptors rather than generated by protoc.
Only the fields read or written by the clients are declared; names and numbers
follow the public ``flow/access`` and ``flow/legacy/access`` protobuf files,
so unknown fields sent by a node are skipped on decode.
"""

from types import SimpleNamespace
from typing import Dict, Iterable, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, timestamp_pb2

_Field = descriptor_pb2.FieldDescriptorProto

_SCALARS = {
    "string": _Field.TYPE_STRING,
    "bytes": _Field.TYPE_BYTES,
    "bool": _Field.TYPE_BOOL,
    "uint32": _Field.TYPE_UINT32,
    "uint64": _Field.TYPE_UINT64,
}

# (name, number, type, repeated). Types starting with "." are message types,
# "enum:" prefixes an enum type name.
FieldSpec = Tuple[str, int, str, bool]

_ENTITIES: Dict[str, Iterable[FieldSpec]] = {
    "Event": [
        ("type", 1, "string", False),
        ("transaction_id", 2, "bytes", False),
        ("transaction_index", 3, "uint32", False),
        ("event_index", 4, "uint32", False),
        ("payload", 5, "bytes", False),
    ],
    "BlockHeader": [
        ("id", 1, "bytes", False),
        ("parent_id", 2, "bytes", False),
        ("height", 3, "uint64", False),
    ],
    "CollectionGuarantee": [
        ("collection_id", 1, "bytes", False),
    ],
    "Block": [
        ("id", 1, "bytes", False),
        ("parent_id", 2, "bytes", False),
        ("height", 3, "uint64", False),
        ("timestamp", 4, ".google.protobuf.Timestamp", False),
        ("collection_guarantees", 5, "{entities}.CollectionGuarantee", True),
    ],
    "Collection": [
        ("id", 1, "bytes", False),
        ("transaction_ids", 2, "bytes", True),
    ],
}

_TRANSACTION_STATUS = ["UNKNOWN", "PENDING", "FINALIZED", "EXECUTED", "SEALED", "EXPIRED"]


def _access_messages(with_block_timestamp: bool) -> Dict[str, Iterable[FieldSpec]]:
    result_fields = [
        ("block_id", 1, "bytes", False),
        ("block_height", 2, "uint64", False),
        ("events", 3, "{entities}.Event", True),
    ]
    if with_block_timestamp:
        result_fields.append(("block_timestamp", 4, ".google.protobuf.Timestamp", False))

    return {
        "GetLatestBlockHeaderRequest": [("is_sealed", 1, "bool", False)],
        "BlockHeaderResponse": [("block", 1, "{entities}.BlockHeader", False)],
        "GetBlockByHeightRequest": [("height", 1, "uint64", False)],
        "BlockResponse": [("block", 1, "{entities}.Block", False)],
        "GetCollectionByIDRequest": [("id", 1, "bytes", False)],
        "CollectionResponse": [("collection", 1, "{entities}.Collection", False)],
        "GetTransactionRequest": [("id", 1, "bytes", False)],
        "TransactionResultResponse": [
            ("status", 1, "enum:{entities}.TransactionStatus", False),
            ("status_code", 2, "uint32", False),
            ("error_message", 3, "string", False),
            ("events", 4, "{entities}.Event", True),
        ],
        "ExecuteScriptAtLatestBlockRequest": [
            ("script", 1, "bytes", False),
            ("arguments", 2, "bytes", True),
        ],
        "ExecuteScriptResponse": [("value", 1, "bytes", False)],
        "GetEventsForHeightRangeRequest": [
            ("type", 1, "string", False),
            ("start_height", 2, "uint64", False),
            ("end_height", 3, "uint64", False),
        ],
        "EventsResponse.Result": result_fields,
        "EventsResponse": [("results", 1, "{access}.EventsResponse.Result", True)],
    }


# rpc name -> (request message, response message)
RPCS = {
    "GetLatestBlockHeader": ("GetLatestBlockHeaderRequest", "BlockHeaderResponse"),
    "GetBlockByHeight": ("GetBlockByHeightRequest", "BlockResponse"),
    "GetCollectionByID": ("GetCollectionByIDRequest", "CollectionResponse"),
    "GetTransactionResult": ("GetTransactionRequest", "TransactionResultResponse"),
    "ExecuteScriptAtLatestBlock": ("ExecuteScriptAtLatestBlockRequest", "ExecuteScriptResponse"),
    "GetEventsForHeightRange": ("GetEventsForHeightRangeRequest", "EventsResponse"),
}


def _fill_message(message: descriptor_pb2.DescriptorProto, fields: Iterable[FieldSpec], names: Dict[str, str]):
    for name, number, kind, repeated in fields:
        field = message.field.add(name=name, number=number)
        field.label = _Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL
        if kind in _SCALARS:
            field.type = _SCALARS[kind]
        elif kind.startswith("enum:"):
            field.type = _Field.TYPE_ENUM
            field.type_name = "." + kind[len("enum:"):].format(**names).lstrip(".")
        else:
            field.type = _Field.TYPE_MESSAGE
            field.type_name = "." + kind.format(**names).lstrip(".")


def _entities_file(package: str) -> descriptor_pb2.FileDescriptorProto:
    names = {"entities": package}
    proto = descriptor_pb2.FileDescriptorProto(
        name=package.replace(".", "/") + ".proto",
        package=package,
        syntax="proto3",
    )
    proto.dependency.append(timestamp_pb2.DESCRIPTOR.name)
    for message_name, fields in _ENTITIES.items():
        _fill_message(proto.message_type.add(name=message_name), fields, names)
    status = proto.enum_type.add(name="TransactionStatus")
    for number, value in enumerate(_TRANSACTION_STATUS):
        status.value.add(name=value, number=number)
    return proto


def _access_file(package: str, entities: descriptor_pb2.FileDescriptorProto, legacy: bool):
    names = {"entities": entities.package, "access": package}
    proto = descriptor_pb2.FileDescriptorProto(
        name=package.replace(".", "/") + ".proto",
        package=package,
        syntax="proto3",
    )
    proto.dependency.extend([timestamp_pb2.DESCRIPTOR.name, entities.name])

    messages = _access_messages(with_block_timestamp=not legacy)
    top_level: Dict[str, descriptor_pb2.DescriptorProto] = {}
    for full_name, fields in messages.items():
        outer, _, inner = full_name.partition(".")
        if outer not in top_level:
            top_level[outer] = proto.message_type.add(name=outer)
        target = top_level[outer].nested_type.add(name=inner) if inner else top_level[outer]
        _fill_message(target, fields, names)

    service = proto.service.add(name="AccessAPI")
    for rpc, (request, response) in RPCS.items():
        service.method.add(
            name=rpc,
            input_type=f".{package}.{request}",
            output_type=f".{package}.{response}",
        )
    return proto


def _build(package: str, entities_package: str, legacy: bool, pool: descriptor_pool.DescriptorPool):
    entities = _entities_file(entities_package)
    access = _access_file(package, entities, legacy)
    pool.AddSerializedFile(entities.SerializeToString())
    pool.AddSerializedFile(access.SerializeToString())

    classes = {}
    for message in access.message_type:
        descriptor = pool.FindMessageTypeByName(f"{package}.{message.name}")
        classes[message.name] = message_factory.GetMessageClass(descriptor)
    for message in entities.message_type:
        descriptor = pool.FindMessageTypeByName(f"{entities_package}.{message.name}")
        classes[message.name] = message_factory.GetMessageClass(descriptor)

    return SimpleNamespace(
        package=package,
        service=f"{package}.AccessAPI",
        method_path=lambda rpc: f"/{package}.AccessAPI/{rpc}",
        **classes,
    )


def _new_pool() -> descriptor_pool.DescriptorPool:
    pool = descriptor_pool.DescriptorPool()
    timestamp_file = descriptor_pb2.FileDescriptorProto()
    timestamp_pb2.DESCRIPTOR.CopyToProto(timestamp_file)
    pool.AddSerializedFile(timestamp_file.SerializeToString())
    return pool


_POOL = _new_pool()

current = _build("flow.access", "flow.entities", legacy=False, pool=_POOL)
legacy = _build("flow.legacy.access", "flow.legacy.entities", legacy=True, pool=_POOL)
