"""HTTP access: the transport adapter, the error taxonomy and the
resilient client that every data operation goes through.
"""
