"""Subjects under management: aggregate, facade and read-model projection."""