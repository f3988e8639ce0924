import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Tuple, Union

from tfdash.config import settings
from tfdash.core.exceptions import WorkspaceError
from tfdash.modules.templates.renderer import CONFIGURATION_FILE, VALUES_FILE, RenderedDocuments

logger = logging.getLogger(__name__)


class WorkspaceManager:
    """Per-deployment directories under ``root`` holding the rendered documents."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root or settings.workspace_root).resolve()

    def path_for(self, deployment_id: str) -> Path:
        return self.root / f"deployment-{deployment_id}"

    def exists(self, deployment_id: str) -> bool:
        return self.path_for(deployment_id).is_dir()

    def prepare(self, deployment_id: str, documents: RenderedDocuments) -> Path:
        """Create the workspace (parents included) and write main.tf and terraform.tfvars."""
        work_dir = self.path_for(deployment_id)
        try:
            os.makedirs(work_dir, exist_ok=True)
            with open(work_dir / CONFIGURATION_FILE, "w", encoding="utf-8", newline="") as f:
                f.write(documents.configuration)
            with open(work_dir / VALUES_FILE, "w", encoding="utf-8", newline="") as f:
                f.write(documents.values_file)
        except OSError as e:
            raise WorkspaceError(f"Failed to prepare workspace {work_dir}: {str(e)}")
        logger.info(f"Prepared workspace {work_dir}")
        return work_dir

    def read_documents(self, work_dir: Union[str, Path]) -> RenderedDocuments:
        work_dir = Path(work_dir)
        try:
            with open(work_dir / CONFIGURATION_FILE, "r", encoding="utf-8", newline="") as f:
                configuration = f.read()
            with open(work_dir / VALUES_FILE, "r", encoding="utf-8", newline="") as f:
                values_file = f.read()
        except OSError as e:
            raise WorkspaceError(f"Failed to read workspace {work_dir}: {str(e)}")
        return RenderedDocuments(configuration=configuration, values_file=values_file)

    def destroy(self, work_dir: Union[str, Path]) -> Tuple[bool, Optional[str]]:
        """Remove the workspace tree. Failure is non-fatal: returns (False, reason)."""
        try:
            shutil.rmtree(work_dir)
            logger.info(f"Cleaned up work directory: {work_dir}")
            return True, None
        except OSError as e:
            logger.warning(f"Failed to cleanup work directory {work_dir}: {str(e)}")
            return False, str(e)
