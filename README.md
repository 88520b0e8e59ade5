# hipster

Turn a full-sky image in equirectangular projection into a HiPS
(Hierarchical Progressive Survey) tile tree that HiPS viewers can load.

The source image is cut into HEALPix tiles of 512×512 pixels at the
deepest order its width supports. Lower orders down to order 0 are then
built by merging child tiles, a 64×64-per-tile `Allsky` preview is written
for order 0, and a `properties` file describing the survey is added.

## Installation

```
pip install .
```

## Command line

```
hipster -o OUTPUT_DIR [options] INPUT
```

Options:

- `-o, --output DIR` — directory the survey is written to (required).
- `-f, --format FORMAT` — tile format: `png`, `jpeg` or `webp`. Every
  name found in the value is used, so `png,webp` writes both; the option
  may also be repeated. Without it the format follows the input's
  extension (`png` or `webp`), otherwise jpeg.
- `--frame FRAME` — `equatorial`, `galactic` or `ecliptic`; written to
  the properties file. Setting a frame also mirrors the longitude of the
  source image.
- `--pngquant` — when the only format is png, run the external `pngquant`
  program on every tile written. It must be installed separately.
- `-p, --propertie "KEY = VALUE"` — add a line to the `properties` file;
  may be repeated.
- `--theta DEG`, `--phi DEG` — whole-degree offsets added to the angles
  of each tile pixel before sampling the source.
- `--bump-to-normal` — treat the input as a bump map and convert it to a
  normal map first.
- `--version` — print the version and exit.

When jpeg is among the formats the source is loaded as RGB; otherwise its
own channels are kept. Tiles whose alpha channel is zero everywhere are not
written.

Example:

```
hipster -o moon-survey -f webp -p "obs_title = Moon" moon.png
```

The output follows the usual HiPS layout:

```
moon-survey/
    properties
    Norder0/Allsky.webp
    Norder0/Dir0/Npix0.webp
    ...
```

## Library use

```python
from hipster import healpix
from hipster.image import load_image
from hipster.survey import SurveyOptions, Format, create_image_survey

theta, phi = healpix.pix2ang(4, 17)
pix = healpix.ang2pix(4, theta, phi)

img = load_image("moon.png", 0)
print(img.w, img.h, img.bpp, img.is_empty())

create_image_survey(SurveyOptions(inputs=["moon.png"], output="moon-survey",
                                  format=Format.PNG))
```

- `hipster.healpix` — NESTED-scheme conversions: `xyf2nest`, `nest2xyf`,
  `get_mat3`, `xy2ang`, `xy2vec`, `pix2vec`, `xyf2ang`, `pix2ang`,
  `ang2pix`.
- `hipster.image` — `Image` (a numpy-backed 8-bit image with `blank`,
  `pixel`, `write`, `map`, `downsample`, `blit`, `is_empty`,
  `bump_to_normal`), `load_image` and `ImageError`.
- `hipster.survey` — `Format`, `Frame`, `SurveyOptions`, the tile,
  allsky and properties writers, `compute_max_order` and
  `create_image_survey`.
- `hipster.cli` — `parse_format`, `parse_frame`, `parse_args` and `main`.

## Limitations

- Only the first input path is used; a second one is accepted and ignored.
- Tiles are generated one at a time in a single process.
- Images are written only as png, jpeg or webp.

## Tests

```
pip install .[test]
pytest
```