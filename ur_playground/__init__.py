"""UR Playground — inspect and round-trip Uniform Resource encoded data.

WHY: URs (typed CBOR payloads, optionally split into fountain-coded
fragments for QR animations) are opaque to humans. Developers need to
see what a UR contains, convert between its textual forms, and produce or
reassemble multi-part sequences.

HOW: Three layers: codec (bytewords, CBOR, fountain primitives behind a
gateway interface), core (detection, conversion orchestration, fountain
assembly and generation, animation timing, cross-context relay), and the
outer surfaces (decoded-value formatters and a CLI).

RULES:
- The core talks to the codec only through CodecGateway
- Every conversion path goes through the UniformResource / hex pivot
- Adding a decoded view = one new formatter module, no core changes
"""

__version__ = "0.1.0"
