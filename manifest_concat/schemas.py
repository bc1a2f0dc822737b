from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from manifest_concat.utils.drm import KeySystemOptions


class GenericParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class KeySystemConfig(GenericParams):
    url: Optional[str] = Field(None, description="License server URL.")

    def to_options(self) -> KeySystemOptions:
        return KeySystemOptions(url=self.url)


class ManifestSource(GenericParams):
    # url and mime type are checked by the concatenation itself, to report which is missing
    url: Optional[str] = Field(None, description="URL of the HLS or DASH manifest.")
    mime_type: Optional[str] = Field(None, description="MIME type of the manifest.", alias="mimeType")
    key_systems: Optional[Dict[str, Union[str, KeySystemConfig]]] = Field(
        None,
        description="DRM configuration keyed by key system, e.g. {'com.widevine.alpha': 'https://license'}.",
        alias="keySystems",
    )

    def key_system_options(self) -> Optional[Dict[str, Union[str, KeySystemOptions]]]:
        if not self.key_systems:
            return None
        return {
            key_system: config if isinstance(config, str) else config.to_options()
            for key_system, config in self.key_systems.items()
        }


class ConcatRequest(GenericParams):
    manifests: Optional[List[ManifestSource]] = Field(None, description="Sources to play back one after another.")
    target_vertical_resolution: float = Field(
        720, description="Vertical resolution to select renditions by.", alias="targetVerticalResolution"
    )


class ConcatPlaylistParams(GenericParams):
    rendition: Literal["video", "audio"] = Field("video", description="Which combined playlist to render.")

