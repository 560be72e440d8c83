import os

from ccem.observability.logger import get_logger

log = get_logger("usage.scanner")

LOG_FILE_SUFFIX = ".jsonl"


def list_log_files(projects_dir: str) -> list[str]:
    """List session logs one level below ``projects_dir`` (one dir per project).

    A missing root yields nothing; an unreadable project dir is skipped.
    """
    files: list[str] = []
    root = os.path.abspath(projects_dir)
    try:
        projects = sorted(os.listdir(root))
    except FileNotFoundError:
        log.debug("projects_dir_missing", path=root)
        return files
    except OSError as e:
        log.warning("projects_dir_unreadable", path=root, error=str(e))
        return files

    for project in projects:
        project_path = os.path.join(root, project)
        try:
            if not os.path.isdir(project_path):
                continue
            names = sorted(os.listdir(project_path))
        except OSError as e:
            log.warning("project_dir_unreadable", path=project_path, error=str(e))
            continue
        for name in names:
            if name.endswith(LOG_FILE_SUFFIX):
                files.append(os.path.join(project_path, name))

    return files
