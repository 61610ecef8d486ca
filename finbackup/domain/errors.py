from __future__ import annotations


class BackupExportError(RuntimeError):
    """Raised when a backup cannot be produced in full."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class UnsupportedChecksumAlgorithm(ValueError):
    def __init__(self, algo: str) -> None:
        super().__init__(f"Algoritmo de checksum não suportado: {algo}")
        self.algo = algo


class RecordOwnershipError(PermissionError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"Registro {record_id} de {kind} pertence a outro usuário")
        self.kind = kind
        self.record_id = record_id
