"""HTTP surface of the Schoolmate backend."""
