"""Export package writing rendered Feishu documents to the local filesystem.

Package Structure:
- document_exporter: Renders one document (or downloads one standalone file) per call
- resource_manager: Saves images, attachments and files next to the Markdown output

Configuration Referenced:
- output.image_dir: Image directory relative to each Markdown file
- output.title_as_filename: Name Markdown files after the document title
- output.skip_img_download: Keep image tokens instead of downloading
- output.dump_json: Write the raw API response next to the Markdown
"""

from .document_exporter import DocumentExporter
from .resource_manager import ExportCancelled, ResourceManager, sanitize_filename

__all__ = [
    'DocumentExporter',
    'ResourceManager',
    'ExportCancelled',
    'sanitize_filename'
]
