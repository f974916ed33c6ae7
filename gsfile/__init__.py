from .batch import read_gsfiles, map_dfr_gsfiles, map_dfc_gsfiles, plan_transfers
from .cache import is_stale, check_update, local_cache_path
from .codec import read_table, write_table
from .config import (
    Config,
    configure,
    using,
    show_config,
    resolve_gcloud_path,
    resolve_cache_dir,
)
from .errors import (
    GSFileError,
    ValidationError,
    NotFoundError,
    RemoteFileExistsError,
    ExternalProcessError,
    CLINotFoundError,
    PerFileError,
)
from .gsutil import Storage, GCloudStorage
from .io import (
    list_gsfile,
    gsfile_exists,
    download_gsfile,
    upload_gsfile,
    read_gsfile,
    write_gsfile,
)
from .validate import validate_gs_path

__all__ = [item for item in dir() if not item.startswith("_")]
__version__ = "0.1.0"
