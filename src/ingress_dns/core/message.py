"""
DNS Message Codec

This module implements the RFC 1035 wire format used by the responder:
- DNS header parsing/construction
- Question section handling (with name compression on decode)
- Resource records for the answer/authority/additional sections
- Helpers for building address answers and replies
"""

import logging
import socket
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

# Guards against compression pointer loops in hostile packets
MAX_POINTER_JUMPS = 64


class DNSResponseCode(IntEnum):
    """DNS Response Codes"""

    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5


class DNSRecordType(IntEnum):
    """DNS Record Types"""

    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    ANY = 255


class DNSClass(IntEnum):
    """DNS Classes"""

    IN = 1
    ANY = 255


@dataclass
class DNSHeader:
    """DNS Message Header"""

    transaction_id: int
    flags: int = 0
    question_count: int = 0
    answer_count: int = 0
    authority_count: int = 0
    additional_count: int = 0

    # Flag field components
    qr: bool = False  # Query/Response bit
    opcode: int = 0
    aa: bool = False  # Authoritative Answer
    tc: bool = False  # Truncation
    rd: bool = True  # Recursion Desired
    ra: bool = False  # Recursion Available
    z: int = 0
    rcode: int = 0

    def __post_init__(self):
        self.flags = self.pack_flags()

    def pack_flags(self) -> int:
        """Combine the individual flag components into the 16-bit field"""
        return (
            (int(self.qr) << 15)
            | (self.opcode << 11)
            | (int(self.aa) << 10)
            | (int(self.tc) << 9)
            | (int(self.rd) << 8)
            | (int(self.ra) << 7)
            | (self.z << 4)
            | self.rcode
        )

    @classmethod
    def parse_flags(cls, flags: int) -> Dict[str, Union[bool, int]]:
        """Parse flags field into individual components"""
        return {
            "qr": bool(flags & 0x8000),
            "opcode": (flags >> 11) & 0x0F,
            "aa": bool(flags & 0x0400),
            "tc": bool(flags & 0x0200),
            "rd": bool(flags & 0x0100),
            "ra": bool(flags & 0x0080),
            "z": (flags >> 4) & 0x07,
            "rcode": flags & 0x0F,
        }

    def to_bytes(self) -> bytes:
        """Convert header to bytes"""
        return struct.pack(
            "!HHHHHH",
            self.transaction_id,
            self.pack_flags(),
            self.question_count,
            self.answer_count,
            self.authority_count,
            self.additional_count,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSHeader":
        """Parse header from bytes"""
        if len(data) < 12:
            raise ValueError("Invalid DNS header: too short")

        tid, flags, qcount, acount, authcount, addcount = struct.unpack(
            "!HHHHHH", data[:12]
        )

        return cls(
            transaction_id=tid,
            flags=flags,
            question_count=qcount,
            answer_count=acount,
            authority_count=authcount,
            additional_count=addcount,
            **cls.parse_flags(flags),
        )


def encode_name(name: str) -> bytes:
    """Encode domain name using DNS label encoding"""
    if name in ("", "."):
        return b"\x00"

    result = b""
    for label in name.rstrip(".").split("."):
        label_bytes = label.encode("ascii")
        if not label_bytes:
            raise ValueError(f"Empty label in name: {name}")
        if len(label_bytes) > 63:
            raise ValueError(f"Label too long: {label}")
        result += struct.pack("!B", len(label_bytes)) + label_bytes
    return result + b"\x00"


def decode_name(data: bytes, offset: int) -> Tuple[str, int]:
    """Decode DNS name with compression support.

    Returns the dotted name (always with a trailing dot) and the offset just
    past the name in the original position of the buffer.
    """
    labels = []
    end_offset = None
    jumps = 0

    while True:
        if offset >= len(data):
            raise ValueError("Invalid name: offset out of bounds")

        length = data[offset]

        if length == 0:
            offset += 1
            break
        elif (length & 0xC0) == 0xC0:
            if offset + 1 >= len(data):
                raise ValueError("Invalid compression pointer")
            jumps += 1
            if jumps > MAX_POINTER_JUMPS:
                raise ValueError("Invalid name: compression loop")
            if end_offset is None:
                end_offset = offset + 2
            offset = ((length & 0x3F) << 8) | data[offset + 1]
        elif length & 0xC0:
            raise ValueError(f"Invalid label type: {length:#x}")
        else:
            if offset + length + 1 > len(data):
                raise ValueError("Invalid label: length exceeds data")
            label = data[offset + 1 : offset + 1 + length].decode("ascii")
            if "." in label:
                raise ValueError(f"Invalid label: embedded dot in {label!r}")
            labels.append(label)
            offset += length + 1

    name = ".".join(labels) + "." if labels else "."
    return name, end_offset if end_offset is not None else offset


@dataclass
class DNSQuestion:
    """DNS Question Section"""

    name: str
    qtype: int
    qclass: int = DNSClass.IN

    def to_bytes(self) -> bytes:
        return encode_name(self.name) + struct.pack("!HH", self.qtype, self.qclass)

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSQuestion", int]:
        """Parse question from bytes at given offset"""
        name, new_offset = decode_name(data, offset)
        if new_offset + 4 > len(data):
            raise ValueError("Invalid question: not enough data for type and class")

        qtype, qclass = struct.unpack("!HH", data[new_offset : new_offset + 4])
        return cls(name=name, qtype=qtype, qclass=qclass), new_offset + 4

    @property
    def bare_name(self) -> str:
        """Query name without the trailing root dot"""
        return self.name[:-1] if self.name.endswith(".") else self.name


@dataclass
class DNSResourceRecord:
    """DNS Resource Record"""

    name: str
    rtype: int
    rclass: int
    ttl: int
    rdata: bytes

    def to_bytes(self) -> bytes:
        header = struct.pack(
            "!HHIH", self.rtype, self.rclass, self.ttl, len(self.rdata)
        )
        return encode_name(self.name) + header + self.rdata

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSResourceRecord", int]:
        """Parse resource record from bytes at given offset"""
        name, new_offset = decode_name(data, offset)

        if new_offset + 10 > len(data):
            raise ValueError("Invalid resource record: not enough data for header")

        rtype, rclass, ttl, rdlength = struct.unpack(
            "!HHIH", data[new_offset : new_offset + 10]
        )
        new_offset += 10

        if new_offset + rdlength > len(data):
            raise ValueError("Invalid resource record: not enough data for rdata")

        rdata = data[new_offset : new_offset + rdlength]

        # Names inside rdata may be compressed against the full message;
        # re-encode them so the record can be copied into another message.
        if rtype in (DNSRecordType.CNAME, DNSRecordType.NS, DNSRecordType.PTR):
            target, _ = decode_name(data, new_offset)
            rdata = encode_name(target)

        return (
            cls(name=name, rtype=rtype, rclass=rclass, ttl=ttl, rdata=rdata),
            new_offset + rdlength,
        )

    def get_readable_rdata(self) -> str:
        """Get human-readable representation of rdata"""
        try:
            if self.rtype == DNSRecordType.A:
                return socket.inet_ntoa(self.rdata)
            elif self.rtype == DNSRecordType.AAAA:
                return socket.inet_ntop(socket.AF_INET6, self.rdata)
            elif self.rtype in (
                DNSRecordType.CNAME,
                DNSRecordType.NS,
                DNSRecordType.PTR,
            ):
                name, _ = decode_name(self.rdata, 0)
                return name
            else:
                return self.rdata.hex()
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to parse rdata for type {self.rtype}: {e}")
            return self.rdata.hex()

    def __str__(self) -> str:
        try:
            type_name = DNSRecordType(self.rtype).name
        except ValueError:
            type_name = f"TYPE{self.rtype}"
        return f"{self.name} {self.ttl} IN {type_name} {self.get_readable_rdata()}"


@dataclass
class DNSMessage:
    """Complete DNS Message"""

    header: DNSHeader
    questions: List[DNSQuestion]
    answers: List[DNSResourceRecord]
    authority: List[DNSResourceRecord]
    additional: List[DNSResourceRecord]

    def to_bytes(self) -> bytes:
        """Convert entire message to bytes"""
        self.header.question_count = len(self.questions)
        self.header.answer_count = len(self.answers)
        self.header.authority_count = len(self.authority)
        self.header.additional_count = len(self.additional)

        result = self.header.to_bytes()

        for question in self.questions:
            result += question.to_bytes()

        for record in self.answers + self.authority + self.additional:
            result += record.to_bytes()

        return result

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSMessage":
        """Parse complete DNS message from bytes"""
        if len(data) < 12:
            raise ValueError("Invalid DNS message: too short")

        header = DNSHeader.from_bytes(data)
        offset = 12

        questions = []
        for _ in range(header.question_count):
            question, offset = DNSQuestion.parse(data, offset)
            questions.append(question)

        sections = []
        for count in (
            header.answer_count,
            header.authority_count,
            header.additional_count,
        ):
            records = []
            for _ in range(count):
                record, offset = DNSResourceRecord.parse(data, offset)
                records.append(record)
            sections.append(records)

        answers, authority, additional = sections
        return cls(
            header=header,
            questions=questions,
            answers=answers,
            authority=authority,
            additional=additional,
        )

    def is_query(self) -> bool:
        return not self.header.qr

    def is_response(self) -> bool:
        return self.header.qr

    def create_response(self, rcode: int = DNSResponseCode.NOERROR) -> "DNSMessage":
        """Create a response message mirroring this query's question section"""
        response_header = DNSHeader(
            transaction_id=self.header.transaction_id,
            qr=True,
            opcode=self.header.opcode,
            rd=self.header.rd,
            ra=True,
            rcode=rcode,
        )

        return DNSMessage(
            header=response_header,
            questions=self.questions.copy(),
            answers=[],
            authority=[],
            additional=[],
        )


def create_query(transaction_id: int, name: str, qtype: int = DNSRecordType.A) -> DNSMessage:
    """Create a single-question recursive query"""
    return DNSMessage(
        header=DNSHeader(transaction_id=transaction_id, rd=True),
        questions=[DNSQuestion(name, qtype, DNSClass.IN)],
        answers=[],
        authority=[],
        additional=[],
    )


def create_a_record(name: str, ip: str, ttl: int = 300) -> DNSResourceRecord:
    """Create an A record"""
    rdata = socket.inet_aton(ip)
    return DNSResourceRecord(
        name=name, rtype=DNSRecordType.A, rclass=DNSClass.IN, ttl=ttl, rdata=rdata
    )
