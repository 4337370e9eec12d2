class MalformedBackupName(ValueError):
    """
    Error indicating that a file matched the backup naming pattern but its
    embedded timestamp could not be recovered. Such a file must never be
    pruned, since its age is unknown.
    """

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Malformed backup name = {file_name}, {reason}")


class SnapshotFailure(Exception):
    """
    Error indicating that a new backup could not be written. No partial file
    is left at the destination.
    """

    def __init__(self, source_path, destination_path, reason: str):
        self.source_path = source_path
        self.destination_path = destination_path
        super().__init__(
            f"Failed to snapshot {source_path} to {destination_path}, {reason}")


class DeletionFailure(Exception):
    """
    Error indicating that a backup selected for pruning could not be removed.
    """

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Failed to delete backup {path}, {reason}")


class ConfigurationMissing(Exception):
    """
    Error indicating that no configuration file exists at the expected path.
    """

    def __init__(self, path):
        self.path = path
        super().__init__(f"No configuration found at {path}")
