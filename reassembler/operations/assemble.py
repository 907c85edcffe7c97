"""Assemble operation: download an exported image from S3 and push it to ECR."""

import logging
import os
import posixpath
import shutil
import threading
from typing import Any, Dict, List, Optional

from ..config.settings import Config
from ..images.builder import build_local_image
from ..registry.credentials import assume_role_session, caller_account_id
from ..registry.ecr_backend import ECRBackend, RegistryClient
from ..storage.downloader import BulkRetriever
from ..storage.s3_backend import S3Backend
from ..utils.progress import human_size
from .provision import RepositoryProvisioner
from .transfer import TransferOperation, load_manifest


logger = logging.getLogger(__name__)


class AssembleOperation:
    """Handles the download, optional local build and transfer of one image."""

    def __init__(self, config: Config, s3_backend: Optional[S3Backend] = None,
                 registry: Optional[RegistryClient] = None, registry_id: Optional[str] = None,
                 cancel_event: Optional[threading.Event] = None, show_progress: bool = True):
        self.config = config
        self._s3_backend = s3_backend
        self._registry = registry
        self._registry_id = registry_id
        self.cancel_event = cancel_event
        self.show_progress = show_progress

    @property
    def s3_backend(self) -> S3Backend:
        """Lazy initialization of the S3 backend."""
        if self._s3_backend is None:
            self._s3_backend = S3Backend.from_session(self.config.session, cancel_event=self.cancel_event)
        return self._s3_backend

    def _connect_registry(self):
        """Assume the put role if configured and resolve the registry id."""
        session = self.config.session
        if self.config.put_role_to_assume:
            session = assume_role_session(
                session,
                self.config.put_role_to_assume,
                external_id=self.config.put_role_external_id,
                duration_seconds=self.config.role_session_duration
            )
        if self._registry is None:
            self._registry = ECRBackend.from_session(session)
        if self._registry_id is None:
            self._registry_id = caller_account_id(session)

    @property
    def registry(self) -> RegistryClient:
        if self._registry is None:
            self._connect_registry()
        return self._registry

    @property
    def registry_id(self) -> str:
        if self._registry_id is None:
            self._connect_registry()
        return self._registry_id

    @staticmethod
    def validate_options(prefix: Optional[str], repository_name: Optional[str], tag: Optional[str],
                         download_only: bool, no_download: bool, layers_path: Optional[str],
                         remove: bool):
        """Reject option combinations that cannot be honoured together."""
        exclusive = [
            ('s3-prefix', prefix, 'no-download', no_download),
            ('repository-name', repository_name, 'download-only', download_only),
            ('download-only', download_only, 'no-download', no_download),
            ('download-only', download_only, 'tag', tag),
            ('download-only', download_only, 'rm', remove),
        ]
        for first, first_value, second, second_value in exclusive:
            if first_value and second_value:
                raise ValueError(f"--{first} and --{second} are mutually exclusive")

        if not no_download and not prefix:
            raise ValueError("--s3-prefix is required unless --no-download is set")
        if no_download and not layers_path:
            raise ValueError("--layers-path is required with --no-download")
        if not download_only and not repository_name:
            raise ValueError("--repository-name is required unless --download-only is set")
        if not download_only and not tag and not (prefix or '').strip('/'):
            raise ValueError("--tag is required when it cannot be derived from --s3-prefix")

    def assemble(self, bucket: str, prefix: Optional[str] = None, repository_name: Optional[str] = None,
                 tag: Optional[str] = None, download_only: bool = False, no_download: bool = False,
                 layers_path: Optional[str] = None, build_local: bool = False, remove: bool = False,
                 dry_run: bool = False) -> Dict[str, Any]:
        """Run the assemble flow and return a summary."""
        self.validate_options(prefix, repository_name, tag, download_only, no_download,
                              layers_path, remove)

        image_tag = tag or posixpath.basename((prefix or '').rstrip('/'))
        logger.debug(
            f"Region: {self.config.region}, S3 Bucket: {bucket}, S3 Prefix: {prefix}, "
            f"Repository Name: {repository_name}, Local Path: {self.config.local_path}, Tag: {image_tag}"
        )

        result: Dict[str, Any] = {
            'bucket': bucket,
            'prefix': prefix,
            'repository_name': repository_name,
            'tag': image_tag,
        }

        downloaded: List[str] = []
        if not no_download:
            retriever = BulkRetriever(
                self.s3_backend.pager,
                self.s3_backend,
                cancel_event=self.cancel_event
            )
            downloaded = retriever.download(bucket, prefix, self.config.local_path)
            result['downloaded'] = len(downloaded)
            if not downloaded:
                logger.error("No layers downloaded")
                result['status'] = 'NothingToDo'
                return result

        if download_only:
            result['status'] = 'Downloaded'
            return result

        path_to_layers = os.path.dirname(downloaded[0]) if downloaded else layers_path
        result['layers_path'] = path_to_layers

        if build_local:
            image = build_local_image(path_to_layers, image_tag)
            logger.info(f"Container image was built locally ({human_size(image.size)})")
            result['local_image_size'] = image.size

        if dry_run:
            manifest = load_manifest(path_to_layers)
            result['status'] = 'DryRun'
            result['actions'] = [
                f"Would ensure repository {repository_name} exists",
                f"Would upload config layer {manifest.config.digest}",
            ] + [
                f"Would upload layer {layer.digest} ({human_size(layer.size)})"
                for layer in manifest.layers
            ] + [
                f"Would put manifest as {repository_name}:{image_tag}"
            ]
            return result

        transfer_op = TransferOperation(
            self.registry,
            provisioner=RepositoryProvisioner(self.registry, self.config.repository_policy),
            cancel_event=self.cancel_event,
            show_progress=self.show_progress
        )
        transfer_result = transfer_op.transfer(path_to_layers, repository_name, self.registry_id, image_tag)
        result['status'] = 'Success'
        result['transfer'] = transfer_result

        if remove and downloaded:
            self._remove_local(bucket, prefix)
        elif remove:
            logger.warning("Nothing was downloaded, --rm ignored")

        return result

    def _remove_local(self, bucket: str, prefix: Optional[str]):
        """Remove downloaded files; failures are only logged."""
        base = os.path.normpath(os.path.join(self.config.local_path, bucket))
        target = os.path.normpath(os.path.join(base, (prefix or '').lstrip('/')))
        if target == base or os.path.commonpath([base, target]) != base:
            logger.warning(f"Not removing {target!r}, it is not inside {base!r}")
            return
        try:
            shutil.rmtree(target)
        except OSError as e:
            logger.warning(f"Error removing {target!r}: {e}")
        else:
            logger.info(f"{target} removed")
