"""Application layer: lifecycle service, commands, DTOs and collaborator ports"""
