from .download_history import DownloadHistory
from .file import File
from .file_statistics import FileStatistics
from .shared_with import SharedWith
from .system_policy import SystemPolicy
from .user import User
