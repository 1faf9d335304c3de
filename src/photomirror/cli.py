"""
PhotoMirror CLI - Command Line Interface
Provides command-line access to the gallery access layer
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from photomirror.config import Settings, get_settings
from photomirror.core.exceptions import PhotoMirrorError
from photomirror.core.logging import configure_logging
from photomirror.services.gallery import GalleryFacade, create_gallery_facade


def run_with_facade(
    settings: Settings, command: Callable[[GalleryFacade], Awaitable[Any]]
) -> Any:
    """Run one async command against a fresh facade, then close it"""

    async def runner() -> Any:
        async with create_gallery_facade(settings) as facade:
            return await command(facade)

    try:
        return asyncio.run(runner())
    except PhotoMirrorError as e:
        print(f"\n❌ {e.code}: {e.message}")
        sys.exit(1)


def save_json(data: Any, output_file: str) -> None:
    with open(output_file, "w") as f:
        json.dump(data, f, indent=2)
    print(f"📄 Saved to: {output_file}")


def albums_command(args, settings):
    """List all albums"""
    print("📁 Listing albums...\n")

    albums = run_with_facade(settings, lambda facade: facade.fetch_albums())

    if not albums:
        print("No albums found.")
        return

    for i, album in enumerate(albums, 1):
        print(f"{i}. {album.title}")
        print(f"   Key: {album.key}")
        print(f"   Images: {album.total_image_count}")
        print()

    total = sum(album.total_image_count for album in albums)
    print(f"Total: {len(albums)} albums, {total:,} images")

    if args.output_json:
        save_json(
            {"albums": [album.to_dict(include_images=False) for album in albums]},
            "albums.json",
        )


def images_command(args, settings):
    """List images for one album"""
    print(f"🖼️  Listing images for album: {args.album_key}\n")

    images = run_with_facade(
        settings, lambda facade: facade.fetch_album_images(args.album_key)
    )

    if not images:
        print(f"No images found for album: {args.album_key}")
        return

    for image in images:
        print(f"{image.key}: {image.title}")
        print(f"   Size: {image.width}x{image.height}")
        print(f"   Large: {image.large_image_url}")
        print()

    print(f"Found {len(images)} images")

    if args.output_json:
        save_json(
            {"images": [image.to_dict() for image in images]},
            f"{args.album_key}_images.json",
        )


def exif_command(args, settings):
    """Show EXIF for one image"""
    print(f"📷 EXIF for image: {args.image_key}\n")

    exif = run_with_facade(
        settings, lambda facade: facade.fetch_image_exif(args.image_key)
    )

    if exif is None:
        print(f"⚠️  EXIF not available for image: {args.image_key}")
        sys.exit(1)

    for name, value in exif.to_dict().items():
        if value is not None:
            print(f"   {name}: {value}")

    if args.output_json:
        save_json(exif.to_dict(), f"{args.image_key}_exif.json")


def gallery_command(args, settings):
    """Load gallery data (albums only unless --eager)"""
    if args.eager:
        print("⚠️  Eager load: fetching every album's images\n")
        gallery = run_with_facade(
            settings, lambda facade: facade.fetch_gallery_data_eager()
        )
    else:
        gallery = run_with_facade(settings, lambda facade: facade.fetch_gallery_data())

    print(f"Albums: {gallery.album_count}")
    print(f"Images: {gallery.total_images:,}")

    if args.output_json:
        save_json(
            {
                "albums": [
                    album.to_dict(include_images=args.eager) for album in gallery.albums
                ],
                "total_images": gallery.total_images,
            },
            "gallery.json",
        )


def status_command(args, settings):
    """Show configuration status"""
    print("🔍 PhotoMirror Status\n")

    print(f"SmugMug credentials: {'✅ Set' if settings.has_credentials else '❌ Not set'}")
    print(f"Account: {settings.smugmug_username or '(resolved via !authuser)'}")
    print(f"API base URL: {settings.smugmug_base_url}")

    print("\n📋 Cache:")
    print(f"   Max entries: {settings.cache_max_entries}")
    print(f"   Albums TTL: {settings.cache_ttl_albums:g}s")
    print(f"   Images TTL: {settings.cache_ttl_images:g}s")
    exif_ttl = settings.cache_ttl_exif
    print(f"   EXIF TTL: {f'{exif_ttl:g}s' if exif_ttl else 'never expires'}")

    print("\n📋 Transport:")
    print(f"   Timeout: {settings.smugmug_timeout:g}s")
    print(f"   Max attempts: {settings.smugmug_max_attempts}")
    print(f"   Page size: {settings.smugmug_page_size}")


def serve_command(args, settings):
    """Start the API server"""
    import uvicorn

    host = args.host or settings.host
    port = args.port or settings.port

    print("🚀 Starting PhotoMirror API server...")
    print(f"   Host: {host}")
    print(f"   Port: {port}")
    print("\n📡 Available endpoints:")
    print("   GET /api/v1/gallery - Gallery landing data")
    print("   GET /api/v1/albums - List albums")
    print("   GET /api/v1/albums/<key>/images - List album images")
    print("   GET /api/v1/images/<key>/exif - Image EXIF")
    print("   GET /api/v1/cache/stats - Cache statistics")
    print("   GET /api/v1/proxy?endpoint=... - Allow-listed SmugMug proxy")
    print("   GET /health/live - Health check")
    print("\nPress Ctrl+C to stop the server\n")

    uvicorn.run(
        "photomirror.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level=settings.log_level.value.lower(),
    )


COMMANDS = {
    "albums": albums_command,
    "images": images_command,
    "exif": exif_command,
    "gallery": gallery_command,
    "status": status_command,
    "serve": serve_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photomirror",
        description="PhotoMirror CLI - Read a SmugMug gallery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s albums                         # List albums
  %(prog)s images abc123 --output-json    # List album images, save as JSON
  %(prog)s exif xyz789                    # Show image EXIF
  %(prog)s gallery --eager                # Load albums and all images
  %(prog)s serve --port 8000              # Start server on port 8000
  %(prog)s status                         # Show configuration status
""",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    albums_parser = subparsers.add_parser("albums", help="List albums")
    albums_parser.add_argument("--output-json", action="store_true", help="Save as JSON")

    images_parser = subparsers.add_parser("images", help="List images of an album")
    images_parser.add_argument("album_key", help="Album key")
    images_parser.add_argument("--output-json", action="store_true", help="Save as JSON")

    exif_parser = subparsers.add_parser("exif", help="Show EXIF of an image")
    exif_parser.add_argument("image_key", help="Image key")
    exif_parser.add_argument("--output-json", action="store_true", help="Save as JSON")

    gallery_parser = subparsers.add_parser("gallery", help="Load gallery data")
    gallery_parser.add_argument(
        "--eager", action="store_true", help="Also fetch every album's images"
    )
    gallery_parser.add_argument("--output-json", action="store_true", help="Save as JSON")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", help="Server host (default: from settings)")
    serve_parser.add_argument("--port", type=int, help="Server port (default: from settings)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("status", help="Show configuration status")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI function"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    settings = get_settings()
    configure_logging(settings)

    COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    main()
