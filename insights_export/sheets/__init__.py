"""Google Sheets destination: column letters, range batching and writing."""
