from cabinet.models.user import User
from cabinet.models.folder import Folder
from cabinet.models.file import File
from cabinet.models.shared_folder import SharedFolder

__all__ = ["User", "Folder", "File", "SharedFolder"]
