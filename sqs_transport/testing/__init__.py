from sqs_transport.testing.mock_sqs import MockClientSqs, MockServerSqs

__all__ = ["MockClientSqs", "MockServerSqs"]
