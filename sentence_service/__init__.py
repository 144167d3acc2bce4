"""Sentence gateway: quota-gated gRPC front end for sentence, translation and definition generation."""
