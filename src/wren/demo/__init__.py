"""Demo application: every feature of wren behind one route table.

Run it with ``wren run`` (or ``python -m wren run``).
"""
