#!/usr/bin/env python3
"""
Quick Start - Nested records, deep updates and change propagation.

Usage:
    python examples/quick_start.py
"""

from trellis import Record


class Address(Record):
    attributes = {"city": "", "zip": ""}


class Person(Record):
    attributes = {"name": "", "address": Address}


def main():
    person = Person({"name": "Ann"})

    person.on("change:address", lambda record, value, options: print(f"  address changed: {value.to_json()}"))
    person.on("change", lambda record, options: print(f"  person changed: {record.to_json()}"))

    print("Updating the nested record directly:")
    person.address.city = "Oslo"

    print()
    print("Deep update through the owner (same Address instance is kept):")
    address = person.address
    person.set({"address": {"zip": "0150"}})
    print(f"  same instance: {person.address is address}")

    print()
    print("Batched writes, one notification cycle:")
    with person.batch():
        person.name = "Anna"
        person.address.city = "Bergen"


if __name__ == "__main__":
    main()
